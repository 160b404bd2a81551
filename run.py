"""
RUN SCRIPT - Start the PixelAI terminal client
==============================================

PURPOSE:
  Single entry point to start the client. It connects to the backend at
  PIXELAI_API_URL (default http://localhost:8000) and keeps guest history in
  database/local_storage/.

USAGE:
  python run.py

NOTE:
  Sign in with /login <token> to use the history stored on your account.
"""

from pixelai.cli import main

# ------------------------------------------------------------------------------
# ENTRY POINT
# ------------------------------------------------------------------------------
# Only start the client when this file is executed directly (python run.py).
if __name__ == "__main__":
    main()
