"""
Services Layer

Business rules for prayer requests, feeds, groups, friendships and profiles:
- Accept a Session plus domain inputs (ids, raw field values)
- Return models or plain result objects
- Raise app.services.errors.ServiceError subclasses; never HTTP exceptions
"""
