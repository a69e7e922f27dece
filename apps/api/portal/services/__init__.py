"""Portal service layer."""
