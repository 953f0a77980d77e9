# =============================================================================
# Services Package — Business Logic
# =============================================================================
# Separated from the API handlers so workers and the report graph share it:
#   - csv_ingest.py: CSV upload parsing with pandas (all cells as text)
#   - record_text.py: statement record → embeddable text block
#   - chunker.py: token-window chunking with tiktoken
#   - embedder.py: OpenAI embeddings (sync batches, async concurrent fan-out)
#   - record_embedding.py: render → chunk → store steps shared by both paths
#   - vectorstore.py: pluggable vector store protocol (pgvector, Chroma)
#   - context.py: historical context retrieval for report prompts
#   - llm.py: multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
#   - auth.py: API key generation, hashing, scope and owner checks
# =============================================================================
