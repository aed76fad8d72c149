# Services package init
"""
Pinboard Backend — Services Layer
===================================

Service Inventory:
    - UserService:      registration, login, profiles, follow toggle
    - PinService:       feed, pin detail, pin creation, like/save toggles
    - BoardService:     a user's boards with pin count and cover pin
    - CommentService:   comments per pin
    - ImageKitService:  upload client with retry and circuit breaker
    - image_transform:  pure computation of the ImageKit pre-transformation
    - relations:        atomic toggle shared by follows, likes and saves

Services are stateless apart from ImageKitService (breaker, HTTP pool),
which create_app() builds once and keeps on app.state.
"""
