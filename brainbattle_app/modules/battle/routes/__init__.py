# JSON endpoints of the battle module: api.py
