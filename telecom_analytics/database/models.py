
from sqlalchemy import (
    Column, Integer, String, Boolean, Float, Date, DateTime, Enum, ForeignKey,
    CheckConstraint, UniqueConstraint, Index, func
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# Enumerations shared with the generator
GENDERS = ('Male', 'Female', 'Other')
SEGMENTS = ('Premium', 'Standard', 'Basic')
SERVICE_TYPES = ('Internet', 'Phone', 'TV', 'Bundle')
PAYMENT_METHODS = ('Credit Card', 'Bank Transfer', 'Electronic Check', 'Mailed Check')
PAYMENT_STATUSES = ('Success', 'Failed', 'Pending', 'Refunded')

class Customer(Base):
    __tablename__ = 'customers'
    __table_args__ = (
        CheckConstraint('age >= 18 AND age <= 100', name='valid_age'),
        Index('idx_customers_segment', 'customer_segment'),
        Index('idx_customers_signup', 'signup_date'),
    )

    customer_id = Column(Integer, primary_key=True, autoincrement=True)
    customer_name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True)
    phone = Column(String(20))
    age = Column(Integer)
    gender = Column(Enum(*GENDERS, name='gender_type', create_constraint=True))
    city = Column(String(50))
    state = Column(String(50))
    country = Column(String(50), default='USA', server_default='USA')
    signup_date = Column(Date, nullable=False)
    customer_segment = Column(Enum(*SEGMENTS, name='segment_type', create_constraint=True))
    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    subscriptions = relationship("Subscription", back_populates="customer")
    usage_metrics = relationship("UsageMetric", back_populates="customer")
    payments = relationship("Payment", back_populates="customer")

class Service(Base):
    __tablename__ = 'services'

    service_id = Column(Integer, primary_key=True, autoincrement=True)
    service_name = Column(String(100), nullable=False)
    service_type = Column(Enum(*SERVICE_TYPES, name='service_type', create_constraint=True))
    monthly_price = Column(Float, nullable=False)
    setup_fee = Column(Float, default=0, server_default='0')
    contract_length_months = Column(Integer, default=12, server_default='12')

    subscriptions = relationship("Subscription", back_populates="service")

class Subscription(Base):
    __tablename__ = 'subscriptions'
    __table_args__ = (
        # Only end_date is checked; churn_date has no ordering constraint
        CheckConstraint('end_date IS NULL OR end_date >= start_date', name='valid_dates'),
        Index('idx_subscriptions_active', 'is_active'),
        Index('idx_subscriptions_churn', 'churn_date'),
        Index('idx_subscriptions_customer', 'customer_id'),
    )

    subscription_id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey('customers.customer_id'))
    service_id = Column(Integer, ForeignKey('services.service_id'))
    start_date = Column(Date, nullable=False)
    end_date = Column(Date)
    monthly_charges = Column(Float, nullable=False)
    total_charges = Column(Float)
    payment_method = Column(Enum(*PAYMENT_METHODS, name='payment_method_type', create_constraint=True))
    paperless_billing = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    churn_date = Column(Date)
    churn_reason = Column(String(200))

    customer = relationship("Customer", back_populates="subscriptions")
    service = relationship("Service", back_populates="subscriptions")

class UsageMetric(Base):
    __tablename__ = 'usage_metrics'
    __table_args__ = (
        CheckConstraint('satisfaction_score BETWEEN 1 AND 10', name='valid_satisfaction'),
        UniqueConstraint('customer_id', 'record_date', name='uq_usage_customer_date'),
        Index('idx_usage_customer_date', 'customer_id', 'record_date'),
    )

    metric_id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey('customers.customer_id'))
    record_date = Column(Date, nullable=False)
    data_usage_gb = Column(Float)  # NULL = missing telemetry
    call_minutes = Column(Integer)
    support_tickets = Column(Integer, default=0)
    website_visits = Column(Integer, default=0)
    app_logins = Column(Integer, default=0)
    satisfaction_score = Column(Integer)

    customer = relationship("Customer", back_populates="usage_metrics")

class Payment(Base):
    __tablename__ = 'payments'
    __table_args__ = (
        Index('idx_payments_customer', 'customer_id'),
        Index('idx_payments_date', 'payment_date'),
    )

    payment_id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey('customers.customer_id'))
    payment_date = Column(Date, nullable=False)
    amount = Column(Float, nullable=False)
    payment_status = Column(Enum(*PAYMENT_STATUSES, name='payment_status_type', create_constraint=True))
    late_fee = Column(Float, default=0)

    customer = relationship("Customer", back_populates="payments")
