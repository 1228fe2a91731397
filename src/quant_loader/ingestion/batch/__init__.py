from .processor import BatchFailure, BatchProcessor, BatchResult, create_batches

__all__ = ["BatchFailure", "BatchProcessor", "BatchResult", "create_batches"]
