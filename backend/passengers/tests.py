from django.test import TestCase, override_settings

from drivers.models import Driver
from services.identity import (
	RoleClassification,
	classify_by_hints,
	classify_role,
	register_driver,
	register_passenger,
	resolve_role,
)

from .models import Passenger


class PassengerRegistrationTests(TestCase):
	def test_new_passenger_gets_default_rating(self):
		result = register_passenger('1001', 'Anna', '+79990000001')

		self.assertTrue(result.success)
		self.assertTrue(result.data['created'])

		passenger = Passenger.objects.get(telegram_id='1001')
		self.assertEqual(str(passenger.rating), '5.00')
		self.assertEqual(passenger.total_rides, 0)
		self.assertEqual(result.data['passenger_id'], passenger.id)

	def test_registration_is_idempotent_and_keeps_profile(self):
		first = register_passenger('1001', 'Anna', '+79990000001')
		second = register_passenger('1001', 'Someone else', '+70000000000')

		self.assertTrue(second.success)
		self.assertFalse(second.data['created'])
		self.assertEqual(first.data['passenger_id'], second.data['passenger_id'])
		self.assertIn('Welcome back', second.message)

		passenger = Passenger.objects.get(telegram_id='1001')
		self.assertEqual(passenger.first_name, 'Anna')
		self.assertEqual(passenger.phone_number, '+79990000001')
		self.assertEqual(Passenger.objects.count(), 1)


class RoleClassificationTests(TestCase):
	def test_registered_passenger_only(self):
		register_passenger('2001', 'Boris', '+79990000002')
		self.assertEqual(classify_role('2001', 'I want to drive'), RoleClassification.PASSENGER)

	def test_registered_driver_only(self):
		register_driver('2002', 'Ivan', '+79990000003', car_model='Kia Rio')
		self.assertEqual(classify_role('2002', 'need a taxi'), RoleClassification.DRIVER)

	def test_registered_as_both_falls_back_to_hints(self):
		register_passenger('2003', 'Olga', '+79990000004')
		register_driver('2003', 'Olga', '+79990000004')

		self.assertEqual(classify_role('2003', 'Order a taxi please'), RoleClassification.PASSENGER)
		self.assertEqual(classify_role('2003', 'I want to go online and earn'), RoleClassification.DRIVER)
		self.assertEqual(classify_role('2003', 'hello'), RoleClassification.AMBIGUOUS)

	def test_unknown_user_uses_hints(self):
		self.assertEqual(classify_role('9999', 'Хочу заказать такси'), RoleClassification.PASSENGER)
		self.assertEqual(classify_role('9999', 'Хочу работать водителем'), RoleClassification.DRIVER)

	def test_both_hint_sets_matching_is_ambiguous(self):
		self.assertEqual(classify_by_hints('taxi driver'), RoleClassification.AMBIGUOUS)
		self.assertEqual(classify_by_hints(''), RoleClassification.AMBIGUOUS)

	@override_settings(MARKETPLACE={'ROLE_HINTS': {'passenger': ['lift'], 'driver': ['wheel']}})
	def test_hints_come_from_settings(self):
		self.assertEqual(classify_by_hints('give me a lift'), RoleClassification.PASSENGER)
		self.assertEqual(classify_by_hints('behind the wheel'), RoleClassification.DRIVER)
		self.assertEqual(classify_by_hints('order a taxi'), RoleClassification.AMBIGUOUS)

	def test_resolve_role_wraps_classification(self):
		Driver.objects.create(telegram_id='2004', first_name='Petr', phone_number='+79990000005')

		result = resolve_role('2004')

		self.assertTrue(result.success)
		self.assertEqual(result.data['role'], 'driver')
