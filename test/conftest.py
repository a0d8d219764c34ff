from test.utils.fixtures import aws, chalice_gateway, customer, other_customer, worker, admin  # noqa: F401
