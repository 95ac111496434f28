"""
Packaging market-intelligence pipeline.

Turns the three sheets of a company export (companies, professionals, economic
history) into segmented, scored and PPWR-assessed companies plus run stats:

    from packintel.pipeline import process_dataset
    result = process_dataset(companies, professionals, economics)
"""
__all__ = [
    "aggregation",
    "explorer",
    "models",
    "narrative",
    "pipeline",
    "ppwr",
    "preprocess",
    "rules",
    "scoring",
    "segmentation",
    "utils",
]
