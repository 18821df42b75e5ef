"""Job worth rank service: score submissions, percentile ranking and duplicate suppression."""

__version__ = "1.0.0"
