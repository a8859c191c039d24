"""Business services for the admin login flow."""
