"""Layout quality metrics."""

from .knn_accuracy import EvaluationResult, evaluate_embedding, evaluation_table, write_evaluation  # noqa: F401

__all__ = ["EvaluationResult", "evaluate_embedding", "evaluation_table", "write_evaluation"]
