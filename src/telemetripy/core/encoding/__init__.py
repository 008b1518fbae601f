"""Wire encoders."""
