from django.core.management import call_command
from django.test import TestCase, override_settings

from services.identity import register_driver, set_driver_status
from services.verification import (
	adjudicate_document,
	derive_verified,
	get_verification_status,
	refresh_driver_verification,
	submit_document,
)

from .models import Driver, DriverDocument


class DriverRegistrationTests(TestCase):
	def test_new_driver_is_offline_and_unverified(self):
		result = register_driver('3001', 'Ivan', '+79990000010', 'Kia Rio', 'white', 'A123BC')

		self.assertTrue(result.success)
		self.assertTrue(result.data['created'])

		driver = Driver.objects.get(telegram_id='3001')
		self.assertFalse(driver.is_verified)
		self.assertFalse(driver.is_online)
		self.assertEqual(str(driver.rating), '5.00')
		self.assertEqual(driver.car_description, 'Kia Rio (white)')

	def test_repeat_registration_keeps_vehicle(self):
		register_driver('3001', 'Ivan', '+79990000010', 'Kia Rio', 'white', 'A123BC')
		result = register_driver('3001', 'Ivan', '+79990000010', 'Lada', 'red', 'X000XX')

		self.assertFalse(result.data['created'])
		self.assertEqual(Driver.objects.get(telegram_id='3001').car_model, 'Kia Rio')

	def test_set_driver_status(self):
		register_driver('3001', 'Ivan', '+79990000010')

		result = set_driver_status('3001', True)

		self.assertTrue(result.success)
		self.assertTrue(Driver.objects.get(telegram_id='3001').is_online)

	def test_set_status_for_unknown_driver(self):
		result = set_driver_status('nobody', True)

		self.assertFalse(result.success)
		self.assertEqual(result.error_code, 'not_found')
		self.assertEqual(result.reason, 'driver_not_found')


class VerificationLedgerTests(TestCase):
	def setUp(self):
		self.driver = Driver.objects.create(
			telegram_id='4001',
			first_name='Sergey',
			phone_number='+79990000020'
		)

	def _submit(self, document_type):
		result = submit_document('4001', document_type, {'file_id': f'{document_type}-file'})
		self.assertTrue(result.success)
		return result.data['document_id']

	def _assert_flag_matches_documents(self):
		self.driver.refresh_from_db()
		self.assertEqual(self.driver.is_verified, derive_verified(self.driver))

	def test_verified_once_both_required_documents_approved(self):
		license_id = self._submit(DriverDocument.TYPE_LICENSE)
		registration_id = self._submit(DriverDocument.TYPE_VEHICLE_REGISTRATION)

		result = adjudicate_document(license_id, True)
		self.assertTrue(result.success)
		self.assertFalse(result.data['is_verified'])
		self._assert_flag_matches_documents()

		result = adjudicate_document(registration_id, True)
		self.assertTrue(result.data['is_verified'])
		self._assert_flag_matches_documents()
		self.assertTrue(self.driver.is_verified)

	def test_insurance_is_optional(self):
		insurance_id = self._submit(DriverDocument.TYPE_INSURANCE)
		adjudicate_document(insurance_id, True)

		self.driver.refresh_from_db()
		self.assertFalse(self.driver.is_verified)

		adjudicate_document(self._submit(DriverDocument.TYPE_LICENSE), True)
		adjudicate_document(self._submit(DriverDocument.TYPE_VEHICLE_REGISTRATION), True)
		adjudicate_document(insurance_id, False, 'Expired')

		self.driver.refresh_from_db()
		self.assertTrue(self.driver.is_verified)

	def test_rejecting_previously_approved_document_revokes_verification(self):
		license_id = self._submit(DriverDocument.TYPE_LICENSE)
		registration_id = self._submit(DriverDocument.TYPE_VEHICLE_REGISTRATION)
		adjudicate_document(license_id, True)
		adjudicate_document(registration_id, True)

		result = adjudicate_document(license_id, False, 'Photo is blurry')

		self.assertTrue(result.success)
		self.assertFalse(result.data['is_verified'])
		self._assert_flag_matches_documents()

		document = DriverDocument.objects.get(pk=license_id)
		self.assertEqual(document.status, 'rejected')
		self.assertEqual(document.rejection_reason, 'Photo is blurry')

	def test_resubmission_overwrites_and_resets_to_pending(self):
		license_id = self._submit(DriverDocument.TYPE_LICENSE)
		registration_id = self._submit(DriverDocument.TYPE_VEHICLE_REGISTRATION)
		adjudicate_document(license_id, False, 'Wrong document')
		adjudicate_document(registration_id, True)

		result = submit_document('4001', DriverDocument.TYPE_LICENSE, {'file_id': 'new-file'})

		self.assertTrue(result.success)
		self.assertFalse(result.data['created'])
		self.assertEqual(result.data['document_id'], license_id)
		self.assertEqual(DriverDocument.objects.filter(driver=self.driver).count(), 2)

		document = DriverDocument.objects.get(pk=license_id)
		self.assertEqual(document.status, 'pending')
		self.assertIsNone(document.rejection_reason)
		self.assertEqual(document.document_data, {'file_id': 'new-file'})

	def test_resubmitting_approved_document_turns_verification_off(self):
		adjudicate_document(self._submit(DriverDocument.TYPE_LICENSE), True)
		adjudicate_document(self._submit(DriverDocument.TYPE_VEHICLE_REGISTRATION), True)
		self.driver.refresh_from_db()
		self.assertTrue(self.driver.is_verified)

		result = submit_document('4001', DriverDocument.TYPE_LICENSE, {'file_id': 'renewed'})

		self.assertFalse(result.data['is_verified'])
		self._assert_flag_matches_documents()

	def test_unknown_driver_and_document(self):
		result = submit_document('nobody', DriverDocument.TYPE_LICENSE, {})
		self.assertEqual(result.reason, 'driver_not_found')

		result = submit_document('4001', 'passport', {})
		self.assertEqual(result.error_code, 'validation_failed')

		result = adjudicate_document(999999, True)
		self.assertEqual(result.reason, 'document_not_found')

	def test_status_snapshot_is_derived_at_read_time(self):
		license_id = self._submit(DriverDocument.TYPE_LICENSE)
		adjudicate_document(license_id, False, 'Expired')
		self._submit(DriverDocument.TYPE_VEHICLE_REGISTRATION)

		# Simulate a stored flag that drifted from the documents
		Driver.objects.filter(pk=self.driver.pk).update(is_verified=True)

		with self.assertLogs('services.verification.ledger', level='WARNING'):
			result = get_verification_status('4001')

		self.assertTrue(result.success)
		self.assertFalse(result.data['is_verified'])
		self.assertEqual(result.data['missing_required'], [])

		statuses = {item['type']: item for item in result.data['documents']}
		self.assertEqual(statuses['license']['status'], 'rejected')
		self.assertEqual(statuses['license']['rejection_reason'], 'Expired')
		self.assertEqual(statuses['vehicle_registration']['status'], 'pending')
		self.assertIn('Expired', result.message)

	def test_refresh_compares_against_stored_flag_not_stale_instance(self):
		license_id = self._submit(DriverDocument.TYPE_LICENSE)
		registration_id = self._submit(DriverDocument.TYPE_VEHICLE_REGISTRATION)
		DriverDocument.objects.filter(pk__in=[license_id, registration_id]).update(status='approved')

		# Another transaction's view of the driver, read before the approvals
		stale = Driver.objects.get(pk=self.driver.pk)
		stale.is_verified = True

		self.assertTrue(refresh_driver_verification(stale))
		self.driver.refresh_from_db()
		self.assertTrue(self.driver.is_verified)

	def test_second_approval_sees_first_through_stored_row(self):
		license_id = self._submit(DriverDocument.TYPE_LICENSE)
		registration_id = self._submit(DriverDocument.TYPE_VEHICLE_REGISTRATION)
		DriverDocument.objects.filter(pk=license_id).update(status='approved')

		result = adjudicate_document(registration_id, True)

		self.assertTrue(result.data['is_verified'])
		self._assert_flag_matches_documents()
		self.assertTrue(self.driver.is_verified)

	def test_status_without_documents(self):
		result = get_verification_status('4001')

		self.assertFalse(result.data['is_verified'])
		self.assertEqual(result.data['documents'], [])
		self.assertEqual(result.data['missing_required'], ['license', 'vehicle_registration'])

	@override_settings(MARKETPLACE={'REQUIRED_DOCUMENT_TYPES': ['license']})
	def test_required_types_come_from_settings(self):
		result = adjudicate_document(self._submit(DriverDocument.TYPE_LICENSE), True)

		self.assertTrue(result.data['is_verified'])

	def test_document_statuses_helper(self):
		self._submit(DriverDocument.TYPE_LICENSE)

		self.assertEqual(self.driver.document_statuses(), {'license': 'pending'})


class ResyncCommandTests(TestCase):
	def test_resync_repairs_drifted_verification_flag(self):
		driver = Driver.objects.create(
			telegram_id='4002',
			first_name='Oleg',
			phone_number='+79990000021',
			is_verified=True
		)

		call_command('resync_marketplace', dry_run=True)
		driver.refresh_from_db()
		self.assertTrue(driver.is_verified)

		call_command('resync_marketplace')
		driver.refresh_from_db()
		self.assertFalse(driver.is_verified)
