# Request/Response Schemas
