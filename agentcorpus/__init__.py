"""
Agent Corpus Backend

Multi-source ingestion of documents, audio, video, websites and YouTube
transcripts into per-agent training corpora, and grounded multimodal
chat answered by the Gemini service with API key rotation.
"""

__version__ = "0.1.0"
