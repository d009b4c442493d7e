"""
PurpleAir AQI Server
====================

This is the Python package for the AQI backend.

HOW IT'S ORGANIZED:
------------------
- models/     = Data structures (what does a reading look like?)
- services/   = Workers (fetch from PurpleAir, convert, cache, schedule)
- routers/    = API endpoints (the doors into our app)
- main.py     = Puts it all together and starts the server

Author: AQI Server Team
"""
