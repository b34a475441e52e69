"""RabbitMQ transport backend."""
