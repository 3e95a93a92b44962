from .training_data import TrainingData

__all__ = ["TrainingData"]
