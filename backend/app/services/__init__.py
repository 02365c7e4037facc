# Services package init
"""
XFound Backend — Services Layer
=================================

Service Inventory:
    - PresenceDirectory: which socket session each online user is reachable on
    - MessageRelay:      persist + forward chat messages arriving on the socket
    - ChatStore (abstract) / ChatService: conversation persistence
    - AuthService:       accounts, tokens, password reset
    - ItemService:       listings
    - FileService:       listing image validation, storage and serving
    - MailService:       outbound SMTP with retry
"""
