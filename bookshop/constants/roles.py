ADMIN = "admin"
CUSTOMER = "customer"
