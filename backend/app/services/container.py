# Overview: Per-application wiring of the subscription core to its collaborators.

from __future__ import annotations

from dataclasses import dataclass

from flask import Flask, current_app

from .interfaces import PaymentGateway, ProductDirectory
from .payment_gateway import RazorpayGateway
from .product_directory import SqlProductDirectory
from .reconciliation_service import PaymentReconciler
from .schedule_service import ScheduleGenerator
from .subscription_service import SubscriptionService


EXTENSION_KEY = "milko"


@dataclass
class Services:
    gateway: PaymentGateway
    products: ProductDirectory
    schedules: ScheduleGenerator
    subscriptions: SubscriptionService
    reconciler: PaymentReconciler


def build_services(
    app: Flask,
    *,
    gateway: PaymentGateway | None = None,
    products: ProductDirectory | None = None,
) -> Services:
    """
    Build the service graph for an app. Any collaborator passed in replaces
    the configured default (tests pass an in-memory gateway).
    """
    config = app.config
    if gateway is None:
        gateway = RazorpayGateway(
            key_id=config.get("RAZORPAY_KEY_ID", ""),
            key_secret=config.get("RAZORPAY_KEY_SECRET", ""),
            webhook_secret=config.get("RAZORPAY_WEBHOOK_SECRET", ""),
            base_url=config.get("RAZORPAY_BASE_URL", "https://api.razorpay.com"),
            timeout=config.get("RAZORPAY_TIMEOUT_SECONDS", 10.0),
        )
    if products is None:
        products = SqlProductDirectory()

    schedules = ScheduleGenerator()
    subscriptions = SubscriptionService(
        gateway=gateway,
        products=products,
        currency=config.get("PAYMENT_CURRENCY", "INR"),
        schedules=schedules,
    )
    return Services(
        gateway=gateway,
        products=products,
        schedules=schedules,
        subscriptions=subscriptions,
        reconciler=PaymentReconciler(subscriptions),
    )


def install_services(app: Flask, **overrides) -> Services:
    services = build_services(app, **overrides)
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
