"""
Data acquisition: response cache, bounded-concurrency batching, ordered
vendor fallback, retry policy and the loader pipeline that ties them
together.
"""
