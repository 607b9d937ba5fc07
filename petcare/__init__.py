"""Pet-care marketplace booking core: recurring series and cancellation refunds."""
