"""sessionlens -- Screenshot sessions with continuity-preserving analysis.

Screenshots are analyzed one at a time by a multimodal model; the session
as a whole is periodically re-derived into a single state (summary,
category, merged entities, suggestions) that must not drift from the
state computed before it. Users can also chat with a session to question
or edit a markdown note.
"""

__version__ = "0.1.0"
