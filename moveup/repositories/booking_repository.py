# moveup/repositories/booking_repository.py
"""
Booking Repository for MoveUp

Data access for bookings: lookups (optionally row-locked) and the
student/instructor listings. Status changes are made by the lifecycle
service on the loaded entity, never by query here.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingStatus, PaymentStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_student_bookings(
        self,
        user_id: str,
        status: Optional[BookingStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Booking]:
        """
        Get bookings for a student, soonest lesson first.

        Args:
            user_id: The student's user ID
            status: Optional status filter
            limit: Optional result limit
        """
        try:
            query = self.db.query(Booking).filter(Booking.user_id == user_id)
            if status is not None:
                query = query.filter(Booking.status == status.value)
            query = query.order_by(Booking.scheduled_at.asc(), Booking.id.asc())
            if limit:
                query = query.limit(limit)
            return query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting student bookings: {str(e)}")
            raise RepositoryException(f"Failed to get student bookings: {str(e)}")

    def get_instructor_bookings(
        self,
        instructor_id: str,
        status: Optional[BookingStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Booking]:
        """Get bookings for an instructor, soonest lesson first."""
        try:
            query = self.db.query(Booking).filter(Booking.instructor_id == instructor_id)
            if status is not None:
                query = query.filter(Booking.status == status.value)
            query = query.order_by(Booking.scheduled_at.asc(), Booking.id.asc())
            if limit:
                query = query.limit(limit)
            return query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting instructor bookings: {str(e)}")
            raise RepositoryException(f"Failed to get instructor bookings: {str(e)}")

    def get_held_amounts(self, instructor_id: str) -> List[int]:
        """Gross amounts of bookings whose payment is held but not yet captured."""
        try:
            rows = (
                self.db.query(Booking.total_amount_cents)
                .filter(
                    Booking.instructor_id == instructor_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.payment_status == PaymentStatus.AUTHORIZED.value,
                )
                .all()
            )
            return [int(row[0]) for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error reading held amounts: {str(e)}")
            raise RepositoryException(f"Failed to read held amounts: {str(e)}")
