"""Discord service for the cakeday birthday scheduler."""
