"""formguard - build-once, CSRF-protected server-rendered forms."""
