from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from django.db import IntegrityError
from django.db.models import QuerySet
from django.test import TestCase, override_settings
from rest_framework.serializers import Serializer
from rest_framework.test import APIClient

from drivers.models import Driver
from passengers.models import Passenger
from realtime.notifications import notify_driver_event
from services.ratings import get_user_rating, rate_ride
from services.ratings.aggregator import average_rating, recompute_user_rating
from services.registry import build_default_registry
from services.ride_management import (
	accept_offer,
	cancel_order,
	complete_ride,
	create_order,
	get_order,
	list_available_orders,
	list_negotiations,
	list_offers,
	list_orders_for_driver,
	make_counter_offer,
	make_offer,
	respond_as_passenger,
	respond_to_counter_offer,
	start_ride,
)
from services.ride_management.order_lifecycle import serialize_order

from .models import DriverOffer, Order, PriceNegotiation, Rating


class MarketplaceTestCase(TestCase):
	"""Shared fixtures: one passenger and two verified, online drivers."""

	def setUp(self):
		self.passenger = Passenger.objects.create(
			telegram_id='p-1',
			first_name='Anna',
			phone_number='+79990000001'
		)
		self.driver_one = Driver.objects.create(
			telegram_id='d-1',
			first_name='Ivan',
			phone_number='+79990000011',
			car_model='Kia Rio',
			car_color='white',
			car_number='A111AA',
			is_online=True,
			is_verified=True
		)
		self.driver_two = Driver.objects.create(
			telegram_id='d-2',
			first_name='Petr',
			phone_number='+79990000012',
			car_model='Skoda Octavia',
			car_number='B222BB',
			is_online=True,
			is_verified=True
		)

	def create_order(self, price='500', passenger=None):
		passenger = passenger or self.passenger
		result = create_order(passenger.telegram_id, 'Lenina 1', 'Airport', price)
		self.assertTrue(result.success, result.message)
		return Order.objects.get(pk=result.data['order_id'])

	def make_offer(self, driver, order, price):
		result = make_offer(driver.telegram_id, order.id, price)
		self.assertTrue(result.success, result.message)
		return DriverOffer.objects.get(pk=result.data['offer_id'])


class OrderEngineTests(MarketplaceTestCase):
	@patch('services.ride_management.order_lifecycle.notify_drivers_about_order')
	def test_create_order_announces_to_eligible_drivers(self, mock_notify):
		Driver.objects.create(telegram_id='d-3', first_name='Offline', phone_number='1', is_verified=True)
		Driver.objects.create(telegram_id='d-4', first_name='Unverified', phone_number='2', is_online=True)

		with self.captureOnCommitCallbacks(execute=True):
			result = create_order('p-1', 'Lenina 1', 'Airport', '500')

		self.assertTrue(result.success)
		self.assertEqual(result.data['eligible_drivers'], 2)

		order = Order.objects.get(pk=result.data['order_id'])
		self.assertEqual(order.status, 'pending')
		self.assertEqual(order.suggested_price, Decimal('500.00'))

		mock_notify.assert_called_once()
		self.assertEqual(sorted(mock_notify.call_args.args[1]), sorted([self.driver_one.id, self.driver_two.id]))

	def test_create_order_requires_registered_passenger(self):
		result = create_order('nobody', 'A', 'B', '300')

		self.assertFalse(result.success)
		self.assertEqual(result.error_code, 'not_found')
		self.assertEqual(result.reason, 'passenger_not_found')
		self.assertFalse(Order.objects.exists())

	def test_create_order_rejects_bad_price(self):
		for price in ['-5', '0', 'abc', 'NaN', 'Infinity', '-Infinity']:
			result = create_order('p-1', 'A', 'B', price)

			self.assertFalse(result.success, price)
			self.assertEqual(result.error_code, 'validation_failed', price)
		self.assertFalse(Order.objects.exists())

	def test_offer_rejects_non_finite_price(self):
		order = self.create_order()

		result = make_offer('d-1', order.id, 'NaN')

		self.assertEqual(result.error_code, 'validation_failed')
		self.assertFalse(DriverOffer.objects.exists())

	def test_list_available_orders_newest_first_with_passenger(self):
		first = self.create_order('300')
		second = self.create_order('400')
		accepted = self.create_order('500')
		Order.objects.filter(pk=accepted.pk).update(status='accepted')

		result = list_available_orders()

		self.assertTrue(result.success)
		ids = [row['order_id'] for row in result.data['orders']]
		self.assertEqual(ids, [second.id, first.id])
		self.assertEqual(result.data['orders'][0]['passenger_name'], 'Anna')
		self.assertEqual(result.data['orders'][0]['passenger_rating'], '5.00')

	def test_missing_passenger_falls_back_to_defaults(self):
		order = self.create_order()

		row = serialize_order(order, None)

		self.assertEqual(row['passenger_name'], 'Unknown')
		self.assertEqual(row['passenger_rating'], '5.00')

	def test_list_orders_for_driver_gates(self):
		self.create_order()

		Driver.objects.filter(pk=self.driver_one.pk).update(is_online=False)
		result = list_orders_for_driver('d-1')
		self.assertEqual(result.reason, 'driver_offline')

		Driver.objects.filter(pk=self.driver_one.pk).update(is_verified=False, is_online=True)
		result = list_orders_for_driver('d-1')
		self.assertEqual(result.error_code, 'policy_denied')
		self.assertEqual(result.reason, 'driver_not_verified')

		result = list_orders_for_driver('d-2')
		self.assertTrue(result.success)
		self.assertEqual(len(result.data['orders']), 1)

	def test_accept_offer_scenario_leaves_sibling_pending(self):
		order = self.create_order('500')
		offer_one = self.make_offer(self.driver_one, order, '600')
		offer_two = self.make_offer(self.driver_two, order, '550')

		with patch('services.ride_management.order_lifecycle.notify_driver_event') as mock_notify:
			with self.captureOnCommitCallbacks(execute=True):
				result = accept_offer(offer_two.id, order.id)

		self.assertTrue(result.success, result.message)
		self.assertEqual(result.data['driver']['phone'], '+79990000012')
		self.assertEqual(result.data['final_price'], '550.00')
		mock_notify.assert_called_once()
		self.assertEqual(mock_notify.call_args.args[0], 'offer_accepted')
		self.assertEqual(mock_notify.call_args.args[2], self.driver_two.id)

		order.refresh_from_db()
		offer_one.refresh_from_db()
		offer_two.refresh_from_db()

		self.assertEqual(order.status, 'accepted')
		self.assertEqual(order.final_price, Decimal('550.00'))
		self.assertEqual(order.accepted_driver, self.driver_two)
		self.assertIsNotNone(order.accepted_at)
		self.assertEqual(offer_two.status, 'accepted')
		self.assertEqual(offer_one.status, 'pending')

	def test_second_acceptance_loses(self):
		order = self.create_order('500')
		offer_one = self.make_offer(self.driver_one, order, '600')
		offer_two = self.make_offer(self.driver_two, order, '550')

		first = accept_offer(offer_two.id, order.id)
		second = accept_offer(offer_one.id, order.id)

		self.assertTrue(first.success)
		self.assertFalse(second.success)
		self.assertEqual(second.error_code, 'conflict')
		self.assertEqual(second.reason, 'order_not_available')
		self.assertIn('no longer available', second.message)

		order.refresh_from_db()
		offer_one.refresh_from_db()
		self.assertEqual(order.accepted_driver, self.driver_two)
		self.assertEqual(order.final_price, Decimal('550.00'))
		self.assertEqual(offer_one.status, 'pending')

	def test_accept_offer_not_found(self):
		order = self.create_order()
		other_order = self.create_order()
		offer = self.make_offer(self.driver_one, other_order, '600')

		result = accept_offer(offer.id, order.id)
		self.assertEqual(result.reason, 'offer_not_found')

		result = accept_offer(999999, order.id)
		self.assertEqual(result.error_code, 'not_found')

	def test_rejected_offer_cannot_be_accepted_and_order_stays_open(self):
		order = self.create_order()
		offer = self.make_offer(self.driver_one, order, '600')
		DriverOffer.objects.filter(pk=offer.pk).update(status='rejected')

		result = accept_offer(offer.id, order.id)

		self.assertEqual(result.reason, 'offer_not_pending')
		order.refresh_from_db()
		self.assertEqual(order.status, 'pending')
		self.assertIsNone(order.accepted_driver)

	@override_settings(MARKETPLACE={'CASCADE_REJECT_ON_ACCEPT': True})
	def test_cascade_reject_on_accept(self):
		order = self.create_order('500')
		offer_one = self.make_offer(self.driver_one, order, '600')
		offer_two = self.make_offer(self.driver_two, order, '550')
		make_counter_offer(order.id, 'p-1', self.driver_one.id, '520')

		result = accept_offer(offer_two.id, order.id)

		self.assertTrue(result.success)
		self.assertEqual(result.data['rejected_offers'], 1)
		offer_one.refresh_from_db()
		self.assertEqual(offer_one.status, 'rejected')
		self.assertFalse(PriceNegotiation.objects.filter(order=order, status='pending').exists())

	def test_get_order_snapshot(self):
		order = self.create_order()
		offer = self.make_offer(self.driver_one, order, '600')
		accept_offer(offer.id, order.id)

		result = get_order(order.id)

		self.assertTrue(result.success)
		self.assertEqual(result.data['order']['status'], 'accepted')
		self.assertEqual(result.data['order']['offers_count'], 1)
		self.assertEqual(result.data['order']['driver']['car'], 'Kia Rio (white)')


class RideLifecycleTests(MarketplaceTestCase):
	def setUp(self):
		super().setUp()
		self.order = self.create_order('500')
		offer = self.make_offer(self.driver_one, self.order, '550')
		accept_offer(offer.id, self.order.id)

	def test_start_and_complete(self):
		with patch('services.ride_management.order_lifecycle.notify_passenger_event') as mock_notify:
			with self.captureOnCommitCallbacks(execute=True):
				self.assertTrue(start_ride('d-1', self.order.id).success)
				self.assertTrue(complete_ride('d-1', self.order.id).success)

		self.order.refresh_from_db()
		self.assertEqual(self.order.status, 'completed')
		self.assertIsNotNone(self.order.started_at)
		self.assertIsNotNone(self.order.completed_at)
		self.assertEqual(
			[call.args[0] for call in mock_notify.call_args_list],
			['ride_started', 'ride_completed']
		)

	def test_only_accepted_driver_can_start(self):
		result = start_ride('d-2', self.order.id)

		self.assertEqual(result.error_code, 'policy_denied')
		self.order.refresh_from_db()
		self.assertEqual(self.order.status, 'accepted')

	def test_complete_requires_started_ride(self):
		result = complete_ride('d-1', self.order.id)

		self.assertEqual(result.error_code, 'conflict')
		self.assertEqual(result.reason, 'invalid_transition')

	def test_passenger_cancels_and_driver_is_told(self):
		with patch('services.ride_management.order_lifecycle.notify_driver_event') as mock_notify:
			with self.captureOnCommitCallbacks(execute=True):
				result = cancel_order('p-1', 'passenger', self.order.id, 'Plans changed')

		self.assertTrue(result.success)
		self.order.refresh_from_db()
		self.assertEqual(self.order.status, 'cancelled')
		self.assertEqual(self.order.cancellation_reason, 'Plans changed')
		mock_notify.assert_called_once()
		self.assertEqual(mock_notify.call_args.args[2], self.driver_one.id)

	def test_finished_order_cannot_be_cancelled(self):
		start_ride('d-1', self.order.id)
		complete_ride('d-1', self.order.id)

		result = cancel_order('p-1', 'passenger', self.order.id)

		self.assertEqual(result.reason, 'order_not_cancellable')

	def test_cancel_by_stranger(self):
		result = cancel_order('d-2', 'driver', self.order.id)
		self.assertEqual(result.reason, 'not_order_participant')

		result = cancel_order('p-1', 'dispatcher', self.order.id)
		self.assertEqual(result.error_code, 'validation_failed')

	def test_driver_cancels_accepted_order(self):
		result = cancel_order('d-1', 'driver', self.order.id)

		self.assertTrue(result.success)
		self.order.refresh_from_db()
		self.assertEqual(self.order.status, 'cancelled')
		self.assertEqual(self.order.cancellation_reason, 'Cancelled by driver')


class OfferTests(MarketplaceTestCase):
	def test_unverified_driver_cannot_offer(self):
		order = self.create_order()
		Driver.objects.filter(pk=self.driver_one.pk).update(is_verified=False)

		result = make_offer('d-1', order.id, '600')

		self.assertFalse(result.success)
		self.assertEqual(result.error_code, 'policy_denied')
		self.assertEqual(result.reason, 'driver_not_verified')
		self.assertFalse(DriverOffer.objects.exists())

	@patch('services.ride_management.negotiation.notify_passenger_event')
	def test_offer_notifies_passenger(self, mock_notify):
		order = self.create_order()

		with self.captureOnCommitCallbacks(execute=True):
			result = make_offer('d-1', order.id, '600', 'Can be there in 5 minutes')

		self.assertTrue(result.success)
		offer = DriverOffer.objects.get(pk=result.data['offer_id'])
		self.assertEqual(offer.status, 'pending')
		self.assertEqual(offer.message, 'Can be there in 5 minutes')
		mock_notify.assert_called_once()
		self.assertEqual(mock_notify.call_args.args[0], 'new_offer')

	def test_duplicate_offer_rejected_regardless_of_status(self):
		order = self.create_order()
		offer = self.make_offer(self.driver_one, order, '600')
		DriverOffer.objects.filter(pk=offer.pk).update(status='rejected')

		result = make_offer('d-1', order.id, '580')

		self.assertEqual(result.error_code, 'conflict')
		self.assertEqual(result.reason, 'duplicate_offer')
		self.assertEqual(DriverOffer.objects.filter(order=order, driver=self.driver_one).count(), 1)
		offer.refresh_from_db()
		self.assertEqual(offer.offered_price, Decimal('600.00'))

	def test_concurrent_duplicate_insert_maps_to_conflict(self):
		order = self.create_order()

		with patch.object(DriverOffer.objects, 'create', side_effect=IntegrityError):
			result = make_offer('d-1', order.id, '600')

		self.assertEqual(result.reason, 'duplicate_offer')

	def test_offer_on_closed_order(self):
		order = self.create_order()
		Order.objects.filter(pk=order.pk).update(status='cancelled')

		result = make_offer('d-1', order.id, '600')

		self.assertEqual(result.reason, 'order_not_available')

	def test_offer_on_negotiating_order_is_allowed(self):
		order = self.create_order()
		Order.objects.filter(pk=order.pk).update(status='negotiating')

		self.assertTrue(make_offer('d-1', order.id, '600').success)

	def test_offer_unknown_driver_or_order(self):
		order = self.create_order()

		self.assertEqual(make_offer('nobody', order.id, '600').reason, 'driver_not_found')
		self.assertEqual(make_offer('d-1', 999999, '600').reason, 'order_not_found')

	def test_list_offers_with_driver_details(self):
		order = self.create_order()
		self.make_offer(self.driver_one, order, '600')
		self.make_offer(self.driver_two, order, '550')

		result = list_offers(order.id)

		self.assertTrue(result.success)
		rows = result.data['offers']
		self.assertEqual([row['driver_name'] for row in rows], ['Ivan', 'Petr'])
		self.assertEqual(rows[0]['driver_rating'], '5.00')
		self.assertEqual(rows[0]['car'], 'Kia Rio (white)')
		self.assertEqual(rows[1]['offered_price'], '550.00')


class NegotiationTests(MarketplaceTestCase):
	def setUp(self):
		super().setUp()
		self.order = self.create_order('500')
		self.offer = self.make_offer(self.driver_one, self.order, '600')

	def test_counter_offer_chain(self):
		with patch('services.ride_management.negotiation.notify_driver_event') as mock_driver, \
				patch('services.ride_management.negotiation.notify_passenger_event') as mock_passenger:
			with self.captureOnCommitCallbacks(execute=True):
				first = make_counter_offer(self.order.id, 'p-1', self.driver_one.id, '450')
				reply = respond_to_counter_offer('d-1', first.data['negotiation_id'], False, '470')

		self.assertTrue(first.success)
		self.assertTrue(reply.success)

		original = PriceNegotiation.objects.get(pk=first.data['negotiation_id'])
		self.assertEqual(original.status, 'pending')
		self.assertEqual(original.from_user_type, 'passenger')
		self.assertEqual(original.to_user_id, self.driver_one.id)
		self.assertEqual(original.proposed_price, Decimal('450.00'))

		counter = PriceNegotiation.objects.get(pk=reply.data['negotiation_id'])
		self.assertEqual(counter.from_user_type, 'driver')
		self.assertEqual(counter.from_user_id, self.driver_one.id)
		self.assertEqual(counter.to_user_type, 'passenger')
		self.assertEqual(counter.to_user_id, self.passenger.id)
		self.assertEqual(counter.proposed_price, Decimal('470.00'))
		self.assertEqual(counter.status, 'pending')
		self.assertEqual(PriceNegotiation.objects.filter(order=self.order).count(), 2)

		self.assertEqual(mock_driver.call_args.args[0], 'counter_offer')
		self.assertEqual(mock_passenger.call_args.args[0], 'counter_offer')

	def test_counter_offer_marks_offer_but_it_stays_acceptable(self):
		make_counter_offer(self.order.id, 'p-1', self.driver_one.id, '450')

		self.offer.refresh_from_db()
		self.assertEqual(self.offer.status, 'counter_offered')

		result = accept_offer(self.offer.id, self.order.id)
		self.assertTrue(result.success)
		self.offer.refresh_from_db()
		self.assertEqual(self.offer.status, 'accepted')

	def test_driver_accepts_without_moving_order(self):
		first = make_counter_offer(self.order.id, 'p-1', self.driver_one.id, '450')

		result = respond_to_counter_offer('d-1', first.data['negotiation_id'], True)

		self.assertTrue(result.success)
		negotiation = PriceNegotiation.objects.get(pk=first.data['negotiation_id'])
		self.assertEqual(negotiation.status, 'accepted')
		self.assertIsNotNone(negotiation.responded_at)
		self.order.refresh_from_db()
		self.assertEqual(self.order.status, 'pending')

	def test_driver_rejects(self):
		first = make_counter_offer(self.order.id, 'p-1', self.driver_one.id, '450')

		result = respond_to_counter_offer('d-1', first.data['negotiation_id'], False)

		self.assertEqual(result.data['status'], 'rejected')
		self.assertEqual(PriceNegotiation.objects.count(), 1)

	def test_resolved_negotiation_is_immutable(self):
		first = make_counter_offer(self.order.id, 'p-1', self.driver_one.id, '450')
		respond_to_counter_offer('d-1', first.data['negotiation_id'], False)

		result = respond_to_counter_offer('d-1', first.data['negotiation_id'], True)

		self.assertEqual(result.error_code, 'conflict')
		self.assertEqual(result.reason, 'negotiation_resolved')
		self.assertEqual(PriceNegotiation.objects.get(pk=first.data['negotiation_id']).status, 'rejected')

	def test_only_addressed_driver_can_respond(self):
		first = make_counter_offer(self.order.id, 'p-1', self.driver_one.id, '450')

		result = respond_to_counter_offer('d-2', first.data['negotiation_id'], True)

		self.assertEqual(result.error_code, 'policy_denied')

	def test_respond_not_found(self):
		self.assertEqual(respond_to_counter_offer('d-1', 999999, True).reason, 'negotiation_not_found')
		self.assertEqual(respond_to_counter_offer('nobody', 1, True).reason, 'driver_not_found')

	def test_passenger_answers_driver_counter(self):
		first = make_counter_offer(self.order.id, 'p-1', self.driver_one.id, '450')
		reply = respond_to_counter_offer('d-1', first.data['negotiation_id'], False, '470')

		result = respond_as_passenger('p-1', reply.data['negotiation_id'], True)

		self.assertTrue(result.success)
		self.assertEqual(PriceNegotiation.objects.get(pk=reply.data['negotiation_id']).status, 'accepted')

	def test_counter_offer_requires_order_owner(self):
		other = Passenger.objects.create(telegram_id='p-2', first_name='Boris', phone_number='2')

		result = make_counter_offer(self.order.id, other.telegram_id, self.driver_one.id, '450')

		self.assertEqual(result.reason, 'not_order_participant')
		self.assertEqual(make_counter_offer(self.order.id, 'nobody', self.driver_one.id, '450').reason,
			'passenger_not_found')
		self.assertEqual(make_counter_offer(self.order.id, 'p-1', 999999, '450').reason, 'driver_not_found')

	def test_counter_offer_on_any_order_status(self):
		Order.objects.filter(pk=self.order.pk).update(status='completed')

		self.assertTrue(make_counter_offer(self.order.id, 'p-1', self.driver_one.id, '450').success)

	@override_settings(MARKETPLACE={'MAX_NEGOTIATION_ROUNDS': 2})
	def test_round_limit(self):
		first = make_counter_offer(self.order.id, 'p-1', self.driver_one.id, '450')
		reply = respond_to_counter_offer('d-1', first.data['negotiation_id'], False, '470')
		self.assertTrue(reply.success)

		result = respond_as_passenger('p-1', reply.data['negotiation_id'], False, '460')

		self.assertEqual(result.reason, 'negotiation_limit_reached')
		self.assertEqual(PriceNegotiation.objects.filter(order=self.order).count(), 2)

	def test_list_negotiations_in_order(self):
		first = make_counter_offer(self.order.id, 'p-1', self.driver_one.id, '450')
		respond_to_counter_offer('d-1', first.data['negotiation_id'], False, '470')

		result = list_negotiations(self.order.id)

		self.assertEqual([row['proposed_price'] for row in result.data['negotiations']], ['450.00', '470.00'])


class RatingTests(MarketplaceTestCase):
	def accepted_order(self, passenger, driver):
		order = self.create_order('500', passenger=passenger)
		offer = self.make_offer(driver, order, '500')
		self.assertTrue(accept_offer(offer.id, order.id).success)
		return order

	def test_average_over_full_history(self):
		for index, score in enumerate([5, 4, 3]):
			passenger = Passenger.objects.create(
				telegram_id=f'rater-{index}',
				first_name=f'Rater {index}',
				phone_number=str(index)
			)
			order = self.accepted_order(passenger, self.driver_one)
			result = rate_ride(passenger.telegram_id, order.id, 'passenger', score)
			self.assertTrue(result.success, result.message)

		self.driver_one.refresh_from_db()
		self.assertEqual(self.driver_one.rating, Decimal('4.00'))
		self.assertEqual(self.driver_one.total_rides, 3)

		result = get_user_rating(self.driver_one.id, 'driver')
		self.assertEqual(result.data['rating'], '4.00')
		self.assertEqual(result.data['total_ratings'], 3)

	def test_rounding_is_half_up_to_two_decimals(self):
		self.assertEqual(average_rating(13, 3), Decimal('4.33'))
		self.assertEqual(average_rating(14, 3), Decimal('4.67'))
		self.assertEqual(average_rating(9, 8), Decimal('1.13'))
		self.assertEqual(average_rating(0, 0), Decimal('5.00'))

	def test_recompute_locks_profile_and_repairs_drift(self):
		order = self.accepted_order(self.passenger, self.driver_one)
		self.assertTrue(rate_ride('p-1', order.id, 'passenger', 4).success)
		Driver.objects.filter(pk=self.driver_one.pk).update(rating=Decimal('1.00'), total_rides=9)

		with patch.object(QuerySet, 'select_for_update', autospec=True, side_effect=QuerySet.select_for_update) as mock_lock:
			average, count = recompute_user_rating('driver', self.driver_one.id)

		mock_lock.assert_called_once()
		self.assertIs(mock_lock.call_args.args[0].model, Driver)
		self.assertEqual((average, count), (Decimal('4.00'), 1))
		self.driver_one.refresh_from_db()
		self.assertEqual(self.driver_one.rating, Decimal('4.00'))
		self.assertEqual(self.driver_one.total_rides, 1)

	def test_zero_ratings_default(self):
		result = get_user_rating(self.driver_two.id, 'driver')

		self.assertTrue(result.success)
		self.assertEqual(result.data['rating'], '5.00')
		self.assertEqual(result.data['total_ratings'], 0)
		self.assertEqual(result.data['recent_comments'], [])

	def test_second_rating_conflicts(self):
		order = self.accepted_order(self.passenger, self.driver_one)

		self.assertTrue(rate_ride('p-1', order.id, 'passenger', 5).success)
		result = rate_ride('p-1', order.id, 'passenger', 1)

		self.assertEqual(result.error_code, 'conflict')
		self.assertEqual(result.reason, 'already_rated')
		self.assertEqual(Rating.objects.filter(order=order).count(), 1)
		self.driver_one.refresh_from_db()
		self.assertEqual(self.driver_one.rating, Decimal('5.00'))

	def test_both_sides_rate_each_other(self):
		order = self.accepted_order(self.passenger, self.driver_one)

		self.assertTrue(rate_ride('p-1', order.id, 'passenger', 4, 'Good driver').success)
		self.assertTrue(rate_ride('d-1', order.id, 'driver', 3, 'Was late').success)

		self.passenger.refresh_from_db()
		self.driver_one.refresh_from_db()
		self.assertEqual(self.passenger.rating, Decimal('3.00'))
		self.assertEqual(self.driver_one.rating, Decimal('4.00'))

	def test_non_participant_cannot_rate(self):
		order = self.accepted_order(self.passenger, self.driver_one)
		stranger = Passenger.objects.create(telegram_id='p-9', first_name='Stranger', phone_number='9')

		result = rate_ride(stranger.telegram_id, order.id, 'passenger', 1)
		self.assertEqual(result.error_code, 'policy_denied')
		self.assertEqual(result.reason, 'not_order_participant')

		result = rate_ride('d-2', order.id, 'driver', 1)
		self.assertEqual(result.reason, 'not_order_participant')
		self.assertFalse(Rating.objects.exists())

	def test_order_without_driver_is_not_rateable(self):
		order = self.create_order()

		result = rate_ride('p-1', order.id, 'passenger', 5)

		self.assertEqual(result.reason, 'ride_not_rateable')

	@override_settings(MARKETPLACE={'RATING_REQUIRES_COMPLETION': True})
	def test_completion_required_when_configured(self):
		order = self.accepted_order(self.passenger, self.driver_one)

		self.assertEqual(rate_ride('p-1', order.id, 'passenger', 5).reason, 'ride_not_rateable')

		start_ride('d-1', order.id)
		complete_ride('d-1', order.id)
		self.assertTrue(rate_ride('p-1', order.id, 'passenger', 5).success)

	def test_score_and_role_validation(self):
		order = self.accepted_order(self.passenger, self.driver_one)

		self.assertEqual(rate_ride('p-1', order.id, 'passenger', 6).error_code, 'validation_failed')
		self.assertEqual(rate_ride('p-1', order.id, 'passenger', 0).error_code, 'validation_failed')
		self.assertEqual(rate_ride('p-1', order.id, 'passenger', 4.5).error_code, 'validation_failed')
		self.assertEqual(rate_ride('p-1', order.id, 'admin', 5).error_code, 'validation_failed')
		self.assertFalse(Rating.objects.exists())

	def test_recent_comments_newest_first(self):
		comments = ['one', '', 'two', None, 'three', 'four', 'five', 'six']
		for index, comment in enumerate(comments):
			passenger = Passenger.objects.create(
				telegram_id=f'c-{index}',
				first_name=f'C {index}',
				phone_number=str(index)
			)
			order = self.accepted_order(passenger, self.driver_two)
			rate_ride(passenger.telegram_id, order.id, 'passenger', 5, comment)

		result = get_user_rating(self.driver_two.id, 'driver')

		self.assertEqual(result.data['total_ratings'], 8)
		self.assertEqual(result.data['recent_comments'], ['six', 'five', 'four', 'three', 'two'])


class NotificationTests(TestCase):
	def setUp(self):
		passenger = Passenger.objects.create(telegram_id='p-1', first_name='Anna', phone_number='1')
		self.order = Order.objects.create(
			passenger=passenger,
			from_address='A',
			to_address='B',
			suggested_price=Decimal('500.00')
		)

	@patch('realtime.notifications.get_channel_layer')
	def test_driver_event_goes_to_driver_group(self, mock_get_layer):
		layer = MagicMock()
		layer.group_send = AsyncMock()
		mock_get_layer.return_value = layer

		sent = notify_driver_event('new_order', self.order, 7, 'New order available')

		self.assertTrue(sent)
		group, payload = layer.group_send.call_args.args
		self.assertEqual(group, 'driver_7')
		self.assertEqual(payload['type'], 'new_order')
		self.assertEqual(payload['order']['order_id'], self.order.id)
		self.assertEqual(payload['order']['suggested_price'], '500.00')

	@patch('realtime.notifications.get_channel_layer', side_effect=RuntimeError('layer down'))
	def test_publish_failure_is_swallowed(self, mock_get_layer):
		with self.assertLogs('realtime.notifications', level='ERROR'):
			self.assertFalse(notify_driver_event('new_order', self.order, 7))


class OperationApiTests(MarketplaceTestCase):
	def setUp(self):
		super().setUp()
		self.client = APIClient()

	def post(self, name, body, **extra):
		return self.client.post(f'/api/operations/{name}/', body, format='json', **extra)

	def test_catalogue_lists_operations(self):
		response = self.client.get('/api/operations/')

		self.assertEqual(response.status_code, 200)
		names = [op['name'] for op in response.json()['operations']]
		self.assertIn('accept_offer', names)
		self.assertIn('rate_ride', names)
		self.assertEqual(names, sorted(names))

	def test_operation_detail_lists_fields(self):
		response = self.client.get('/api/operations/make_offer/')

		self.assertEqual(response.status_code, 200)
		self.assertIn('driver_handle', response.json()['fields'])

	def test_create_order_and_offer_over_http(self):
		response = self.post('create_order', {
			'passenger_handle': 'p-1',
			'from_address': 'Lenina 1',
			'to_address': 'Airport',
			'suggested_price': '500.00',
		})
		self.assertEqual(response.status_code, 200)
		order_id = response.json()['order_id']

		response = self.post('make_offer', {'driver_handle': 'd-1', 'order_id': order_id, 'price': '600'})
		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.json()['success'])

		response = self.post('make_offer', {'driver_handle': 'd-1', 'order_id': order_id, 'price': '600'})
		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.json()['reason'], 'duplicate_offer')

	def test_status_mapping(self):
		response = self.post('create_order', {
			'passenger_handle': 'nobody',
			'from_address': 'A',
			'to_address': 'B',
			'suggested_price': '100',
		})
		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.json()['error_code'], 'not_found')

		order = self.create_order()
		Driver.objects.filter(pk=self.driver_one.pk).update(is_verified=False)
		response = self.post('make_offer', {'driver_handle': 'd-1', 'order_id': order.id, 'price': '600'})
		self.assertEqual(response.status_code, 403)
		self.assertEqual(response.json()['reason'], 'driver_not_verified')

	def test_invalid_body(self):
		response = self.post('rate_ride', {'from_handle': 'p-1', 'order_id': 1, 'role': 'passenger', 'score': 9})

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.json()['error_code'], 'validation_failed')
		self.assertIn('score', response.json()['errors'])

	def test_unknown_operation(self):
		self.assertEqual(self.post('launch_rocket', {}).status_code, 404)
		self.assertEqual(self.client.get('/api/operations/launch_rocket/').status_code, 404)

	def test_operation_without_arguments(self):
		self.create_order()

		response = self.post('list_available_orders', {})

		self.assertEqual(response.status_code, 200)
		self.assertEqual(len(response.json()['orders']), 1)

	@override_settings(MARKETPLACE={'AGENT_API_TOKEN': 'secret'})
	def test_agent_token_required_when_configured(self):
		self.assertEqual(self.client.get('/api/operations/').status_code, 403)
		self.assertEqual(self.client.get('/api/operations/', HTTP_X_AGENT_TOKEN='wrong').status_code, 403)
		self.assertEqual(self.client.get('/api/operations/', HTTP_X_AGENT_TOKEN='secret').status_code, 200)

	def test_health_check(self):
		response = self.client.get('/health/')

		self.assertEqual(response.status_code, 200)
		body = response.json()
		self.assertEqual(body['status'], 'healthy')
		self.assertEqual(body['services'], {'database': 'healthy', 'channels': 'healthy'})

	@patch('app_backend.views.get_channel_layer', return_value=None)
	def test_health_check_reports_missing_channel_layer(self, mock_layer):
		with self.assertLogs('app_backend.views', level='WARNING'):
			response = self.client.get('/health/')

		self.assertEqual(response.status_code, 503)
		self.assertEqual(response.json()['services']['database'], 'healthy')
		self.assertTrue(response.json()['services']['channels'].startswith('unhealthy'))

	def test_every_input_serializer_backs_an_operation(self):
		from drivers import serializers as driver_inputs
		from passengers import serializers as passenger_inputs
		from rides import serializers as ride_inputs

		registry = build_default_registry()
		used = {registry.get(name).serializer_class for name in registry.names()}
		for module in (driver_inputs, passenger_inputs, ride_inputs):
			for value in vars(module).values():
				if isinstance(value, type) and issubclass(value, Serializer) and value.__module__ == module.__name__:
					self.assertIn(value, used, value.__name__)

	def test_registry_rejects_duplicate_names(self):
		registry = build_default_registry()

		self.assertIn('make_counter_offer', registry)
		self.assertIsNone(registry.get('missing'))
		with self.assertRaises(ValueError):
			registry.register('make_offer', make_offer, None)
