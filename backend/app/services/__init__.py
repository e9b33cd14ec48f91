# Services package init
"""
Notes Backend — Services Layer
================================

What:  Repository operations between routes (HTTP) and the database.

Service Inventory:
    - NoteService: list, search, get, create, update, archive toggle, delete
"""
