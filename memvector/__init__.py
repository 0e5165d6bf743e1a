"""
In-memory vector database with exact cosine similarity search.
"""
