from .change_classifier import classify_change
from .co_occurrence import cap_entity_ids, detect_co_occurrence_pairs
from .entity_extractor import EntityExtractor, Extraction, entity_id, extract_simple_entities, guess_entity_type
from .similarity import article_similarity, jaccard, similarity, time_proximity

__all__ = [
    "EntityExtractor",
    "Extraction",
    "article_similarity",
    "cap_entity_ids",
    "classify_change",
    "detect_co_occurrence_pairs",
    "entity_id",
    "extract_simple_entities",
    "guess_entity_type",
    "jaccard",
    "similarity",
    "time_proximity",
]
