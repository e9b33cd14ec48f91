# Routes package init
"""
Notes Backend — API Routes Package
====================================

Route Inventory:
    - notes.py:   GET    /api/notes                 (list, filter, paginate)
                  GET    /api/notes/search          (relevance search)
                  GET    /api/notes/{id}            (single note)
                  POST   /api/notes                 (create)
                  PUT    /api/notes/{id}            (partial update)
                  PATCH  /api/notes/{id}/archive    (toggle archived)
                  DELETE /api/notes/{id}            (delete)
    - health.py:  GET    /health                    (liveness)

Routes stay thin: parse the request, call NoteService, wrap the result.
"""
