"""Form runtime engine package.

Pure engine code lives in `form_runtime/logic/` (page ordering, navigation,
validation, expressions, templates) and the pydantic data model in
`form_runtime/models/`. `form_runtime.main.create_app` wires the engine into
a small FastAPI service; route handlers live in `form_runtime/routes/`.
"""

from __future__ import annotations
