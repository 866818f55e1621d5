from .detail import ContractDetail, ContractDetailController
