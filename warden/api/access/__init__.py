"""Access control: authorization engine, tenant isolation, audit and monitoring."""
