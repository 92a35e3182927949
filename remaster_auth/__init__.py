"""remaster-auth: token lifecycle and account recovery service."""
