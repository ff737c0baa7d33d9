from notifications.mailers import BaseMailer
from notifications.tests.testapp.models import Order


class OrderMailer(BaseMailer):
    def shipped(self, order_id):
        order = Order.objects.get(pk=order_id)
        return self.send(
            to=[order.customer_email],
            subject=f"Order #{order.number} shipped",
            context={"title": f"Order #{order.number} shipped", "body": order.city},
        )
