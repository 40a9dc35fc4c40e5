from .column_classifier import ColumnClassifier, ColumnMapping
from .config import IngestionSettings, LookupTables
from .notation import NotationResolver
from .pipeline import ImportOptions, IngestionPipeline, ParseOptions, ParseReport
from .service import IngestionService
from .summary import AggregationSummarizer
from .validator import RowValidator

__all__ = [
    "ColumnClassifier",
    "ColumnMapping",
    "IngestionSettings",
    "LookupTables",
    "NotationResolver",
    "ImportOptions",
    "IngestionPipeline",
    "ParseOptions",
    "ParseReport",
    "IngestionService",
    "AggregationSummarizer",
    "RowValidator",
]
