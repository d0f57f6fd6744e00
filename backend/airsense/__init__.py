"""
AirSense Telemetry Backend
==========================

This is the Python package for the backend API.

HOW IT'S ORGANIZED:
------------------
- models/    = Data structures (what does a reading look like?)
- services/  = Workers (talk to Gemini and the weather API, correct readings)
- routers/   = API endpoints (the doors into our app)
- utils/     = Small helpers (number parsing, JSON extraction)
- config.py  = Settings from environment variables
- errors.py  = What can go wrong, and which HTTP status it maps to
- main.py    = Puts it all together and starts the server
"""
