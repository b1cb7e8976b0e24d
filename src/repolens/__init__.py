"""repolens - Repository analysis pipeline.

repolens fetches a repository's file catalog from a hosting provider and turns
it into a structured analysis report: an import graph, an architectural
classification, heuristic findings and quality metrics. Long runs stream
weighted progress to the caller and completed reports are kept in a bounded
cache.

Core principles:
- Partial failure is not total failure: a failing sub-analysis becomes a warning
- Progress never goes backward
- Expensive stages are bounded by deadlines and cheap fallbacks
- The LLM is optional; rule-based output always exists
"""

__version__ = "0.1.0"
__author__ = "repolens Contributors"
