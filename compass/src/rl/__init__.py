"""Novelty, archive and option machinery behind the exploration strategies."""

from compass.src.rl.features import FeatureVectorizer
from compass.src.rl.fingerprint import StateFingerprinter, hamming_distance
from compass.src.rl.frontier import FrontierManager
from compass.src.rl.novelty import CountNovelty, NoveltyModel, RandomNetworkDistillation
from compass.src.rl.option_scheduler import OptionScheduler
from compass.src.rl.options import DEFAULT_OPTIONS, OptionContext, OptionPolicy

__all__ = [
    "CountNovelty",
    "DEFAULT_OPTIONS",
    "FeatureVectorizer",
    "FrontierManager",
    "NoveltyModel",
    "OptionContext",
    "OptionPolicy",
    "OptionScheduler",
    "RandomNetworkDistillation",
    "StateFingerprinter",
    "hamming_distance",
]
