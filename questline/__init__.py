# Questline: RPG progression engine for tasks and focus sessions.
# Progression, streak and quest formulas are pure; projections and services
# work against the storage gateway in questline.storage.

__version__ = "0.4.0"
