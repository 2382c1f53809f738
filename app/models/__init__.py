from .booking import BookingSource, BookingStatus, FieldClass, PaymentMethod
