from circlstm.model.lm import CircLSTMLM
