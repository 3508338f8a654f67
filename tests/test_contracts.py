"""
Contract service tests.

Run with: python -m pytest tests/test_contracts.py -v
"""

import pytest

from services.documents import (
    CONTRACTS_KEY,
    ContractNotFound,
    ContractStatus,
    InvalidTransition,
    PermissionDenied,
    ValidationError,
    calculate_final_rate,
)

from conftest import GUEST, MANAGER, OWNER_A, OWNER_B


class TestCalculateFinalRate:

    def test_standard_commission(self):
        assert calculate_final_rate(100, 15) == (115, 15)

    def test_commission_rounds_half_up(self):
        # 2450 * 15% = 367.5
        assert calculate_final_rate(2450, 15) == (2818, 368)

    def test_zero_commission(self):
        assert calculate_final_rate(80, 0) == (80, 0)

    def test_negative_rate_rejected(self):
        with pytest.raises(ValidationError):
            calculate_final_rate(-5, 15)

    @pytest.mark.parametrize('base_rate', ['NaN', 'Infinity', '-Infinity', 'sNaN', 'abc'])
    def test_non_finite_rate_rejected(self, base_rate):
        with pytest.raises(ValidationError) as exc_info:
            calculate_final_rate(base_rate, 15)
        assert exc_info.value.field == 'baseRate'


class TestIssueContract:

    def test_issue_contract(self, contracts, artifacts, contract_template):
        contract = contracts.issue_contract(
            contract_template, OWNER_A, MANAGER,
            property_id='prop-7', property_name='Seaview Loft', base_rate=100,
        )

        assert contract.status == ContractStatus.SENT
        assert contract.owner_id == OWNER_A.id
        assert contract.owner_email == OWNER_A.email
        assert contract.commission_percentage == 15
        assert contract.base_rate == 100
        assert contract.final_rate == 115
        assert 'Final rate with commission: $115/night' in contract.terms
        assert artifacts.exists(contract.source_artifact_locator)

        values = {f.id: f.value for f in contract.fields}
        assert values['property_name'] == 'Seaview Loft'
        assert values['owner_name'] == OWNER_A.name
        assert values['base_rate'] == '100'
        assert values['final_rate'] == '115'
        assert values['commission_rate'] == '15'

    def test_issue_without_rate(self, contracts, contract_template):
        contract = contracts.issue_contract(contract_template, OWNER_A, MANAGER)
        assert contract.final_rate is None
        assert contract.terms == 'Standard property rental agreement with 15% platform commission.'
        assert 'final_rate' not in {f.id for f in contract.fields}

    def test_template_fields_are_copied(self, contracts, templates, contract_template):
        contract = contracts.issue_contract(contract_template, OWNER_A, MANAGER)
        templates.update_template(contract_template.id, {'commissionPercentage': 20}, MANAGER)

        reloaded = contracts.get_contract(contract.id)
        assert reloaded.commission_percentage == 15
        assert reloaded.fields == contract.fields

    def test_non_contract_template_rejected(self, contracts, inspection_template):
        with pytest.raises(ValidationError):
            contracts.issue_contract(inspection_template, OWNER_A, MANAGER)

    def test_owner_cannot_issue(self, contracts, contract_template):
        with pytest.raises(PermissionDenied):
            contracts.issue_contract(contract_template, OWNER_B, OWNER_A)

    def test_recipient_must_be_able_to_review(self, contracts, contract_template):
        with pytest.raises(ValidationError):
            contracts.issue_contract(contract_template, GUEST, MANAGER)


class TestContractReview:

    @pytest.fixture(autouse=True)
    def setup(self, contracts, contract_template):
        self.contracts = contracts
        self.contract = contracts.issue_contract(contract_template, OWNER_A, MANAGER, base_rate=100)

    def test_agree(self):
        agreed = self.contracts.agree(self.contract.id, OWNER_A)
        assert agreed.status == ContractStatus.AGREED
        assert agreed.agreed_at is not None
        assert agreed.reviewed_at == agreed.agreed_at
        assert self.contracts.get_contract(self.contract.id).status == ContractStatus.AGREED

    def test_disagree_records_reason(self, store):
        disagreed = self.contracts.disagree(self.contract.id, OWNER_A, '  Commission too high  ')
        assert disagreed.status == ContractStatus.DISAGREED
        assert disagreed.disagreement_reason == 'Commission too high'
        assert store.find_item(CONTRACTS_KEY, self.contract.id)['disagreementReason'] == 'Commission too high'
        assert disagreed.agreed_at is None
        assert disagreed.disagreed_at is not None

    def test_disagree_with_rate_too_low(self, contracts, contract_template):
        """Single-owner contract at 15% commission, rejected by its owner."""
        contract = contracts.issue_contract(contract_template, OWNER_B, MANAGER, base_rate=120)
        assert contract.commission_percentage == 15
        assert contract.status == ContractStatus.SENT

        disagreed = contracts.disagree(contract.id, OWNER_B, 'rate too low')

        assert disagreed.status == ContractStatus.DISAGREED
        assert disagreed.disagreement_reason == 'rate too low'
        assert disagreed.agreed_at is None

        reloaded = contracts.get_contract(contract.id)
        assert reloaded.status == ContractStatus.DISAGREED
        assert reloaded.disagreement_reason == 'rate too low'
        assert reloaded.agreed_at is None

    def test_non_text_reason_rejected(self):
        with pytest.raises(ValidationError):
            self.contracts.disagree(self.contract.id, OWNER_A, 5)
        assert self.contracts.get_contract(self.contract.id).status == ContractStatus.SENT

    def test_disagree_requires_reason(self):
        with pytest.raises(ValidationError):
            self.contracts.disagree(self.contract.id, OWNER_A, '   ')
        assert self.contracts.get_contract(self.contract.id).status == ContractStatus.SENT

    def test_agreed_is_terminal(self):
        """Sent -> agreed; any later move is rejected and the contract is unchanged."""
        self.contracts.agree(self.contract.id, OWNER_A)
        with pytest.raises(InvalidTransition):
            self.contracts.disagree(self.contract.id, OWNER_A, 'changed my mind')
        with pytest.raises(InvalidTransition):
            self.contracts.agree(self.contract.id, OWNER_A)

        contract = self.contracts.get_contract(self.contract.id)
        assert contract.status == ContractStatus.AGREED
        assert contract.disagreement_reason is None

    def test_disagreed_is_terminal(self):
        self.contracts.disagree(self.contract.id, OWNER_A, 'Rate too low')
        with pytest.raises(InvalidTransition) as exc_info:
            self.contracts.agree(self.contract.id, OWNER_A)
        assert exc_info.value.current_status == 'disagreed'
        assert exc_info.value.target_status == 'agreed'

    def test_only_owner_may_review(self):
        with pytest.raises(PermissionDenied):
            self.contracts.agree(self.contract.id, OWNER_B)
        with pytest.raises(PermissionDenied):
            self.contracts.agree(self.contract.id, MANAGER)
        assert self.contracts.get_contract(self.contract.id).status == ContractStatus.SENT

    def test_unknown_contract(self):
        with pytest.raises(ContractNotFound):
            self.contracts.agree('contract-missing', OWNER_A)


class TestContractViews:

    def test_owner_views(self, contracts, contract_template):
        first = contracts.issue_contract(contract_template, OWNER_A, MANAGER)
        second = contracts.issue_contract(contract_template, OWNER_A, MANAGER)
        contracts.issue_contract(contract_template, OWNER_B, MANAGER)
        contracts.agree(first.id, OWNER_A)

        assert [c.id for c in contracts.contracts_for_owner(OWNER_A.id)] == [first.id, second.id]
        assert [c.id for c in contracts.pending_contracts_for_owner(OWNER_A.id)] == [second.id]

    def test_manager_sees_all(self, contracts, contract_template):
        contracts.issue_contract(contract_template, OWNER_A, MANAGER)
        contracts.issue_contract(contract_template, OWNER_B, MANAGER)
        assert len(contracts.contracts_for_user(MANAGER)) == 2
        assert len(contracts.contracts_for_user(OWNER_B)) == 1
        assert contracts.contracts_for_user(GUEST) == []
