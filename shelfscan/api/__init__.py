"""
ShelfScan HTTP API.

FastAPI surface over the shelf analysis pipeline.
"""
