import uuid


def generate_code(prefix=""):
    return prefix + uuid.uuid4().hex[:8].upper()


def generate_order_number():
    return generate_code("ORD-")
