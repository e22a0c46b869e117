"""
RUN SCRIPT - Start the S.C.R.I.B.E server
=========================================

PURPOSE:
  Single entry point to start the backend. Run this once per author/machine;
  the server then handles every drafting request for that instance.

WHAT IT DOES:
  - Imports the FastAPI app from scribe.main.
  - Runs it with uvicorn on host 0.0.0.0 and the configured PORT (default 3000).
  - reload=True means any change to Python files will restart the server (handy for development).

USAGE:
  python run.py

  Then open http://localhost:3000 in the browser, or use client.py.
  API docs: http://localhost:3000/docs

NOTE:
  Before running, set OPENAI_API_KEY in .env and build the corpus once with
  python build_index.py (the server also runs without a corpus, just with no excerpts).
"""

import uvicorn

from config import PORT

# ------------------------------------------------------------------------------
# ENTRY POINT
# ------------------------------------------------------------------------------
if __name__ == "__main__":
    uvicorn.run(
        "scribe.main:app",   # String path to the FastAPI app instance (module:variable).
        host="0.0.0.0",      # Listen on all network interfaces so other devices can connect.
        port=PORT,           # HTTP port from PORT in .env.
        reload=True          # Auto-restart when .py files change (useful during development).
    )
