"""
Tests for the QR Code Service.

Covers:
- Campaign-wide generation and its per-SKU distribution
- Batch tags across runs and preview codes
- Partial batch failures
- Image rendering
- Standalone verification and ledger stats
"""
import pytest
from unittest.mock import patch
from sqlalchemy.exc import SQLAlchemyError

from shopper_rewards.extensions import db
from shopper_rewards.models import Campaign, Product, QRCode
from shopper_rewards.services.qr_service import (
    PREVIEW_BATCH_NUMBER,
    QRService,
    build_scan_url,
    render_qr_data_url,
    render_qr_image,
)
from shopper_rewards.services.redemption_ledger import RedemptionLedger
from shopper_rewards.utils.exceptions import (
    CampaignNotFoundError,
    QRCodeNotFoundError,
    QRGenerationError,
    ValidationError,
)
from shopper_rewards.utils.tokens import hash_token

class TestGenerateForCampaign:
    """Tests for QRService.generate_for_campaign."""

    def test_splits_total_evenly_across_skus(self, app, sample_campaign):
        """1680 codes over two SKUs gives 840 each."""
        results = QRService().generate_for_campaign(sample_campaign.id, 'https://shop.example.com')

        assert len(results) == 2
        assert [r.total_generated for r in results] == [840, 840]
        assert all(r.errors == [] for r in results)
        assert QRCode.query.filter_by(campaign_id=sample_campaign.id).count() == 1680

    def test_every_code_has_unique_hash(self, app, sample_campaign):
        QRService().generate_for_campaign(sample_campaign.id, 'https://shop.example.com')

        hashes = [h for (h,) in db.session.query(QRCode.token_hash)]
        assert len(hashes) == len(set(hashes)) == 1680

    def test_each_sku_gets_its_own_batch_tag(self, app, sample_campaign):
        results = QRService().generate_for_campaign(sample_campaign.id, 'https://shop.example.com')

        assert [r.batch_number for r in results] == [1, 2]
        for result in results:
            batch_numbers = {
                c.batch_number for c in QRCode.query.filter_by(sku_id=result.sku_id)
            }
            assert batch_numbers == {result.batch_number}

    def test_rerun_continues_batch_tags(self, app, sample_campaign):
        """A second run never reuses a tag from the first."""
        app.config['QR_TOTAL_CODES'] = 4
        service = QRService()

        service.generate_for_campaign(sample_campaign.id, 'https://shop.example.com')
        second = service.generate_for_campaign(sample_campaign.id, 'https://shop.example.com')

        assert [r.batch_number for r in second] == [3, 4]

    def test_urls_embed_raw_token_matching_stored_hash(self, app, sample_campaign):
        app.config['QR_TOTAL_CODES'] = 2
        results = QRService().generate_for_campaign(sample_campaign.id, 'https://shop.example.com/')

        entry = results[0].qr_codes[0]
        prefix = f'https://shop.example.com/feedback?campaign={sample_campaign.id}&s={results[0].sku_id}&t='
        assert entry['url'].startswith(prefix)
        assert entry['url'].endswith('&qr=true')

        raw_token = entry['url'][len(prefix):-len('&qr=true')]
        code = db.session.get(QRCode, entry['id'])
        assert code.token_hash == hash_token(raw_token)
        assert raw_token not in code.token_hash

    def test_at_least_one_code_per_sku(self, app, sample_campaign):
        """Fewer total codes than SKUs still yields one code each."""
        app.config['QR_TOTAL_CODES'] = 1
        results = QRService().generate_for_campaign(sample_campaign.id, 'https://shop.example.com')

        assert [r.total_generated for r in results] == [1, 1]

    def test_unknown_campaign(self, app):
        with pytest.raises(CampaignNotFoundError):
            QRService().generate_for_campaign('3f2c1a7e-0000-4000-8000-000000000000', 'https://shop.example.com')

    def test_campaign_without_products(self, app):
        campaign = Campaign(name='Empty')
        db.session.add(campaign)
        db.session.commit()

        with pytest.raises(ValidationError) as exc:
            QRService().generate_for_campaign(campaign.id, 'https://shop.example.com')
        assert 'No products linked' in exc.value.message

    def test_products_without_skus(self, app):
        campaign = Campaign(name='No SKUs')
        campaign.products.append(Product(name='Bare product'))
        db.session.add(campaign)
        db.session.commit()

        with pytest.raises(ValidationError) as exc:
            QRService().generate_for_campaign(campaign.id, 'https://shop.example.com')
        assert 'No SKUs' in exc.value.message


class TestBatchFailures:
    """A failed batch is reported and generation carries on."""

    def test_failed_batch_recorded_and_rest_inserted(self, app, sample_campaign):
        app.config['QR_TOTAL_CODES'] = 20
        app.config['QR_BATCH_SIZE'] = 5

        ledger = RedemptionLedger()
        real_insert = ledger.insert_batch
        calls = []

        def flaky_insert(rows):
            calls.append(len(rows))
            if len(calls) == 2:
                raise SQLAlchemyError('disk I/O error')
            return real_insert(rows)

        with patch.object(ledger, 'insert_batch', side_effect=flaky_insert):
            results = QRService(ledger=ledger).generate_for_campaign(
                sample_campaign.id, 'https://shop.example.com'
            )

        assert results[0].total_generated == 5
        assert results[0].errors == ['Failed to insert batch 2 (5 codes)']
        assert results[1].total_generated == 10
        assert results[1].errors == []
        assert QRCode.query.count() == 15

    def test_nothing_generated_raises(self, app, sample_campaign):
        app.config['QR_TOTAL_CODES'] = 4

        ledger = RedemptionLedger()
        with patch.object(ledger, 'insert_batch', side_effect=SQLAlchemyError('database is locked')):
            with pytest.raises(QRGenerationError) as exc:
                QRService(ledger=ledger).generate_for_campaign(sample_campaign.id, 'https://shop.example.com')

        assert len(exc.value.results) == 2
        assert all(r.total_generated == 0 for r in exc.value.results)


class TestPreview:
    """Tests for QRService.generate_preview."""

    def test_one_preview_per_sku(self, app, sample_campaign):
        previews, errors = QRService().generate_preview(sample_campaign.id, 'https://shop.example.com')

        assert len(previews) == 2
        assert errors == []
        assert {p['sku_id'] for p in previews} == {s.id for s in sample_campaign.variants()}
        assert all(p['qr_code'].startswith('data:image/png;base64,') for p in previews)

        stored = QRCode.query.all()
        assert len(stored) == 2
        assert {c.batch_number for c in stored} == {PREVIEW_BATCH_NUMBER}

    def test_preview_codes_do_not_shift_batch_tags(self, app, sample_campaign):
        QRService().generate_preview(sample_campaign.id, 'https://shop.example.com')
        assert RedemptionLedger().next_batch_number(sample_campaign.id) == 1

    def test_failed_sku_is_reported(self, app, sample_campaign):
        ledger = RedemptionLedger()
        real_insert = ledger.insert_batch
        first_sku, second_sku = sample_campaign.variants()

        def insert_batch(rows):
            if rows[0]['sku_id'] == first_sku.id:
                raise SQLAlchemyError('database is locked')
            return real_insert(rows)

        with patch.object(ledger, 'insert_batch', side_effect=insert_batch):
            previews, errors = QRService(ledger=ledger).generate_preview(sample_campaign.id, 'https://shop.example.com')

        assert [p['sku_id'] for p in previews] == [second_sku.id]
        assert errors == [f'Failed to create preview for SKU {first_sku.id}']

    def test_nothing_persisted_raises(self, app, sample_campaign):
        ledger = RedemptionLedger()
        with patch.object(ledger, 'insert_batch', side_effect=SQLAlchemyError('database is locked')):
            with pytest.raises(QRGenerationError) as exc:
                QRService(ledger=ledger).generate_preview(sample_campaign.id, 'https://shop.example.com')

        assert len(exc.value.results) == 2
        assert QRCode.query.count() == 0


class TestRendering:
    """Tests for image rendering helpers."""

    def test_render_png(self):
        png = render_qr_image(build_scan_url('https://shop.example.com', 'c', 's', 'abc'))
        assert png.startswith(b'\x89PNG\r\n\x1a\n')

    def test_render_data_url(self):
        assert render_qr_data_url('https://shop.example.com').startswith('data:image/png;base64,')

    def test_get_image_from_stored_url(self, app, sample_qr_code):
        png = QRService().get_image(sample_qr_code.id)
        assert png.startswith(b'\x89PNG')

    def test_get_code_rejects_raw_token(self, app, sample_qr_code, raw_token):
        """Lookup by id only; a raw token is not an id."""
        with pytest.raises(QRCodeNotFoundError):
            QRService().get_code(raw_token[0])


class TestVerify:
    """Tests for QRService.verify."""

    def test_raw_token_verifies_once(self, app, sample_qr_code, raw_token, nairobi_location):
        service = QRService()

        assert service.verify(raw_token[0], nairobi_location) is True
        assert service.verify(raw_token[0], nairobi_location) is False

        code = db.session.get(QRCode, sample_qr_code.id)
        assert code.is_used is True
        assert code.used_at is not None
        assert code.location == nairobi_location

    def test_ledger_id_verifies_once(self, app, sample_qr_code):
        service = QRService()

        assert service.verify(sample_qr_code.id) is True
        assert service.verify(sample_qr_code.id) is False

    def test_unknown_token(self, app):
        assert QRService().verify('not-a-real-token') is False


class TestStats:
    """Tests for QRService.get_stats."""

    def test_counts_and_breakdowns(self, app, sample_campaign, sample_sku, sample_qr_code, make_qr_code, nairobi_location):
        make_qr_code()
        make_qr_code()
        QRService().verify(sample_qr_code.id, nairobi_location)

        stats = QRService().get_stats(sample_campaign.id)

        assert stats['total'] == 3
        assert stats['used'] == 1
        assert stats['unused'] == 2
        assert stats['by_region'] == {'Nairobi': 1}
        assert stats['by_sku'] == {sample_sku.id: 3}

    def test_unknown_campaign(self, app):
        with pytest.raises(CampaignNotFoundError):
            QRService().get_stats('3f2c1a7e-0000-4000-8000-000000000000')

    def test_ignores_regions_that_are_not_strings(self, app, sample_campaign, make_qr_code, nairobi_location):
        listed, _ = make_qr_code()
        listed.is_used = True
        listed.location = {'latitude': -1.2921, 'longitude': 36.8219, 'region': ['Nairobi']}
        odd, _ = make_qr_code()
        odd.is_used = True
        odd.location = ['Nairobi']
        db.session.commit()

        QRService().verify(make_qr_code()[0].id, nairobi_location)

        stats = QRService().get_stats(sample_campaign.id)

        assert stats['used'] == 3
        assert stats['by_region'] == {'Nairobi': 1}
