"""IPA store HTTP API (FastAPI)"""
