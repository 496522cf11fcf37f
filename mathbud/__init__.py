"""
Math Bud core package.

Modules
───────
models   — Pydantic data models (Solution, HistoryItem, TopicNote, ChatMessage)
errors   — Exception hierarchy shared by the core and the web layer
topics   — Keyword heuristics mapping a solution to topic labels
notes    — Per-topic note aggregation and renaming
history  — Capped, newest-first solve history
store    — SQLite-backed key/value persistence of the session blobs
solver   — Claude vision relay: image → structured Solution
chat     — Claude tutoring chat relay and transcript helpers
session  — StudySession: owns notes, history and chat; runs the pipeline
"""
